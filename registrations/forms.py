from django import forms


class RegistrationForm(forms.Form):
    """Player details collected before checkout."""

    name = forms.CharField(max_length=128)
    email = forms.EmailField()
    contact = forms.CharField(max_length=20)
    age = forms.IntegerField(required=False, min_value=0, max_value=120)
    team = forms.CharField(max_length=128, required=False)

    def player_fields(self) -> dict:
        data = self.cleaned_data
        return {
            "full_name": data["name"],
            "email": data["email"],
            "phone": data["contact"],
            "age": data.get("age") or None,
            "team_name": data.get("team") or "",
        }


class PaymentConfirmationForm(forms.Form):
    paymentId = forms.CharField(max_length=64)
    orderId = forms.CharField(max_length=64)
    signature = forms.CharField(max_length=128)
