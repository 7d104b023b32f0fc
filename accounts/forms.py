import re

from django import forms

from queue_system.capabilities import to_list

MOBILE_RE = re.compile(r'^(?:\+94|94|0)?(\d{9})$')


def normalize_mobile(raw):
    """Return the canonical 0XXXXXXXXX form of a Sri Lankan mobile number, or None."""
    if not raw:
        return None
    compact = re.sub(r'[\s-]+', '', str(raw))
    match = MOBILE_RE.match(compact)
    if not match:
        return None
    return '0' + match.group(1)


class CodeSetField(forms.Field):
    """A set of service or language codes given as a list, JSON string or mapping."""

    def to_python(self, value):
        if value in self.empty_values:
            return []
        return to_list(value)


class TokenRegistrationForm(forms.Form):
    name = forms.CharField(max_length=150, strip=True)
    mobile_number = forms.CharField(max_length=20)
    outlet_id = forms.IntegerField(min_value=1)
    service_types = CodeSetField(error_messages={'required': 'Select at least one service'})
    preferred_languages = CodeSetField(required=False)
    nic_number = forms.CharField(max_length=20, required=False, strip=True)
    email = forms.EmailField(required=False)

    def clean_mobile_number(self):
        mobile = normalize_mobile(self.cleaned_data.get('mobile_number', ''))
        if not mobile:
            raise forms.ValidationError('Enter a valid Sri Lankan mobile number')
        return mobile
