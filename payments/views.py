import logging

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .integrations.razorpay import (
    RazorpayError, cancel_payment, create_order, mask_key, verify_signature,
)
from .utils import (
    idempotency_key, json_body, order_notes, remember_order, remembered_order, valid_amount,
)

logger = logging.getLogger(__name__)

VERIFY_FIELDS = ("paymentId", "orderId", "signature")


@csrf_exempt
@require_POST
def create_order_view(request):
    body = json_body(request)
    if body is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)

    amount = body.get("amount")
    logger.info("Creating order for amount: %s", amount)
    if not valid_amount(amount):
        return JsonResponse({"error": "Invalid amount provided"}, status=400)

    key = idempotency_key(request, body)
    order = remembered_order(key)
    if order:
        logger.info("Returning existing order %s for idempotency key %s", order.get("id"), key)
        return JsonResponse(order)

    try:
        order = create_order(amount, notes=order_notes(body))
    except RazorpayError as e:
        logger.error("Error creating order: %s", e)
        return JsonResponse({"error": str(e) or "Failed to create order"}, status=500)

    remember_order(key, order)
    return JsonResponse(order)


@csrf_exempt
@require_POST
def verify_payment_view(request):
    body = json_body(request)
    if body is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)

    missing = [k for k in VERIFY_FIELDS if not isinstance(body.get(k), str) or not body.get(k)]
    if missing:
        return JsonResponse({"error": f"Missing fields: {', '.join(missing)}"}, status=400)

    payment_id, order_id = body["paymentId"], body["orderId"]
    registration_id = body.get("registrationId")
    logger.info("Verifying payment: payment_id=%s order_id=%s registration_id=%s",
                payment_id, order_id, registration_id)

    if not verify_signature(order_id, payment_id, body["signature"]):
        logger.warning("Invalid signature for payment_id=%s order_id=%s", payment_id, order_id)
        return JsonResponse({"error": "Invalid signature"}, status=400)

    logger.info("Payment verification successful: %s", payment_id)
    result = {"verified": True, "paymentId": payment_id, "orderId": order_id}
    if registration_id:
        result["registrationId"] = registration_id
    return JsonResponse(result)


@csrf_exempt
@require_POST
def cancel_payment_view(request):
    body = json_body(request) or {}
    payment_id = body.get("paymentId")
    if not isinstance(payment_id, str) or not payment_id.startswith("pay_"):
        return JsonResponse({"success": False, "error": "Invalid or missing paymentId"}, status=400)

    try:
        status, data = cancel_payment(payment_id)
    except RazorpayError:
        logger.exception("Error cancelling payment %s", payment_id)
        return JsonResponse({"success": False, "error": "Internal server error"}, status=500)

    if not 200 <= status < 300:
        err = data.get("error") if isinstance(data, dict) else None
        if not isinstance(err, dict):
            err = {}
        logger.error("Razorpay cancel error: status=%s code=%s description=%s reason=%s",
                     status, err.get("code"), err.get("description"), err.get("reason"))
        return JsonResponse(
            {"success": False, "error": err.get("description") or "Cancel failed", "razorpay": err or None},
            status=status,
        )
    # the gateway answers with the voided Payment object
    return JsonResponse({"success": True, "payment": data})


@require_GET
def config_view(request):
    """Public runtime config for the checkout client. Never includes the secret."""
    key_id = settings.RAZORPAY_KEY_ID
    logger.debug("Serving public key id %s", mask_key(key_id))
    return JsonResponse({"razorpayKeyId": key_id, "key": key_id, "mode": settings.SSPL_ENV})
