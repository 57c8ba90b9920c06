import bleach
from django.conf import settings
from rest_framework import serializers

from admission.models import Patient


def _clean(v) -> str:
    return bleach.clean((v or '').strip(), tags=set(), strip=True).strip()


class PatientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = [
            'id', 'token', 'name', 'age', 'country', 'details', 'status',
            'created_at', 'admitted_at', 'finished_at',
        ]
        read_only_fields = fields


class CheckInSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, trim_whitespace=True)
    age = serializers.IntegerField(min_value=0, max_value=150)
    country = serializers.CharField(max_length=128, trim_whitespace=True)
    details = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_name(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Missing required fields')
        return v

    def validate_country(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Missing required fields')
        return v

    def validate_details(self, v):
        return _clean(v) or None


class LenientIntegerField(serializers.Field):
    """An integer, or None for anything that is not one."""

    def to_internal_value(self, data):
        if isinstance(data, bool):
            return None
        if isinstance(data, int):
            return data
        if isinstance(data, str):
            try:
                return int(data.strip())
            except ValueError:
                return None
        return None

    def to_representation(self, value):
        return value


class AdmitNextSerializer(serializers.Serializer):
    """``count`` wins over ``num``; with neither, the default batch size applies.

    A value that is not an integer is ignored rather than rejected, so the
    next source is used instead.
    """
    count = LenientIntegerField(required=False, allow_null=True)
    num = LenientIntegerField(required=False, allow_null=True)

    def batch_size(self) -> int:
        data = self.validated_data
        for key in ('count', 'num'):
            if data.get(key) is not None:
                return data[key]
        return settings.QUEUE_NEXT_DEFAULT
