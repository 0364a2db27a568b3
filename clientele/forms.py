"""Input validation forms for the JSON API and services."""

from django import forms
from django.core.validators import RegexValidator

from clientele.models import ContactPreference, DeliveryMethod
from clientele.models.address import postal_code_validator
from clientele.models.courier import courier_code_validator


def form_errors(form: forms.Form) -> dict[str, list[str]]:
    """Flatten form errors to {field: [messages]}."""
    return {field: [str(e) for e in errors] for field, errors in form.errors.items()}


class AddressForm(forms.Form):
    label = forms.CharField(max_length=100)
    recipient_first_name = forms.CharField(max_length=100, required=False)
    recipient_last_name = forms.CharField(max_length=100, required=False)
    street_address = forms.CharField(max_length=500)
    barangay = forms.CharField(max_length=255)
    city = forms.CharField(max_length=255)
    province = forms.CharField(max_length=255)
    region = forms.CharField(max_length=100, required=False)
    postal_code = forms.CharField(max_length=4, validators=[postal_code_validator])
    is_default = forms.BooleanField(required=False)

    def clean_region(self):
        return self.cleaned_data.get("region") or None


class RegistrationForm(forms.Form):
    first_name = forms.CharField(max_length=100)
    last_name = forms.CharField(max_length=100, required=False)
    email = forms.EmailField(max_length=255)
    phone = forms.CharField(
        min_length=10,
        max_length=50,
        error_messages={"min_length": "Phone must be at least 10 digits"},
    )
    contact_preference = forms.ChoiceField(choices=ContactPreference.choices)
    delivery_method = forms.ChoiceField(choices=DeliveryMethod.choices)
    courier_code = forms.CharField(max_length=50, required=False)
    is_returning_customer = forms.BooleanField(required=False)

    profile_street_address = forms.CharField(max_length=500, required=False)
    profile_barangay = forms.CharField(max_length=255, required=False)
    profile_city = forms.CharField(max_length=255, required=False)
    profile_province = forms.CharField(max_length=255, required=False)
    profile_region = forms.CharField(max_length=100, required=False)
    profile_postal_code = forms.CharField(
        max_length=4, required=False, validators=[postal_code_validator]
    )


class ProfileForm(RegistrationForm):
    """Partial profile update: every field optional, only submitted keys apply."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            field.required = False

    def changed_values(self) -> dict:
        return {k: v for k, v in self.cleaned_data.items() if k in self.data}


class CourierForm(forms.Form):
    code = forms.CharField(max_length=50, validators=[courier_code_validator])
    name = forms.CharField(max_length=100)
    is_active = forms.BooleanField(required=False, initial=True)


class LedgerLinkForm(forms.Form):
    contact_id = forms.CharField(
        max_length=64,
        validators=[RegexValidator(r"^[A-Za-z0-9_-]+$", "Invalid contact ID")],
    )
