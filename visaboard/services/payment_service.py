# visaboard/services/payment_service.py
# Simulated provider redirects; no gateway is contacted.

import json
import time
import uuid
from urllib.parse import quote
from visaboard.config import settings
from visaboard.models.membership import Payment

PAYMENT_METHODS = ("ALIPAY", "WECHAT", "VISA", "MASTERCARD", "PAYPAL")


def generate_transaction_id() -> str:
    return f"TXN_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def result_url(transaction_id: str, status: str, payment_id=None) -> str:
    url = f"{settings.app_base_url}/membership/payment/result?transaction_id={transaction_id}&status={status}"
    if payment_id is not None:
        url += f"&payment_id={payment_id}"
    return url


def build_payment_url(payment: Payment, method: str) -> str:
    base_url = settings.app_base_url
    success_url = result_url(payment.transaction_id, "completed", payment.id)
    cancel_url = f"{base_url}/membership/payment/result?status=cancelled"
    notify_url = f"{base_url}/payment/callback"

    if method == "ALIPAY":
        biz_content = json.dumps({
            "out_trade_no": payment.transaction_id,
            "product_code": "FAST_INSTANT_TRADE_PAY",
            "total_amount": f"{payment.amount}",
            "subject": "Membership Plan",
        })
        return (
            "https://openapi.alipay.com/gateway.do?method=alipay.trade.page.pay&app_id=demo"
            f"&charset=UTF-8&sign_type=RSA2&timestamp={int(time.time() * 1000)}&version=1.0"
            f"&notify_url={quote(notify_url)}&return_url={quote(success_url)}&biz_content={quote(biz_content)}"
        )
    if method == "WECHAT":
        return (
            "https://api.mch.weixin.qq.com/pay/unifiedorder?appid=demo&mch_id=demo"
            f"&nonce_str={int(time.time() * 1000)}&body=Membership%20Plan&out_trade_no={payment.transaction_id}"
            f"&total_fee={round(payment.amount * 100)}&trade_type=NATIVE"
            f"&notify_url={quote(notify_url)}&redirect_url={quote(success_url)}"
        )
    if method in ("VISA", "MASTERCARD"):
        return (
            f"https://checkout.stripe.com/pay?session_id=demo_{payment.transaction_id}"
            f"&success_url={quote(success_url)}&cancel_url={quote(cancel_url)}"
        )
    # PAYPAL
    return (
        f"https://www.sandbox.paypal.com/checkoutnow?token=demo_{payment.transaction_id}"
        f"&useraction=commit&returnUrl={quote(success_url)}&cancelUrl={quote(cancel_url)}"
    )
