import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from checkout.session import PaymentSuccess
from payments.integrations.razorpay import CURRENCY, to_minor_units, verify_signature
from payments.utils import json_body
from .forms import PaymentConfirmationForm, RegistrationForm
from .services import DuplicateOrder, register_verified_player, registration_fee

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def register_view(request):
    """Record a player once the gateway's signature checks out.

    201 for a new row, 200 when the same payment was already recorded.
    """
    body = json_body(request)
    if body is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)

    form = RegistrationForm(body)
    confirmation = PaymentConfirmationForm(body)
    if not (form.is_valid() and confirmation.is_valid()):
        errors = {**form.errors.get_json_data(), **confirmation.errors.get_json_data()}
        return JsonResponse({"error": "Invalid registration", "fields": errors}, status=400)

    data = confirmation.cleaned_data
    payment = PaymentSuccess(payment_id=data["paymentId"], order_id=data["orderId"], signature=data["signature"])
    if not verify_signature(payment.order_id, payment.payment_id, payment.signature):
        logger.warning("Registration rejected, invalid signature for payment_id=%s", payment.payment_id)
        return JsonResponse({"error": "Invalid signature"}, status=400)

    try:
        registration, created = register_verified_player(form.player_fields(), payment, verified=True)
    except DuplicateOrder as e:
        return JsonResponse({"error": str(e)}, status=409)
    return JsonResponse(registration.as_dict(), status=201 if created else 200)


@require_GET
def fee_view(request):
    fee = registration_fee()
    return JsonResponse({
        "amount": int(fee) if fee == fee.to_integral_value() else float(fee),
        "amountMinor": to_minor_units(fee),
        "currency": CURRENCY,
    })
