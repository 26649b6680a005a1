from rest_framework import serializers

from event_checkin.participants.api.serializers import ParticipantSerializer
from event_checkin.preregistration.models import PreRegisteredParticipant


class PreRegisteredParticipantSerializer(serializers.ModelSerializer):
    raw_data = serializers.SerializerMethodField()

    class Meta:
        model = PreRegisteredParticipant
        fields = [
            "id",
            "event",
            "identifier_type",
            "identifier_value",
            "full_name",
            "email",
            "national_id",
            "area",
            "raw_data",
            "converted",
            "converted_registration",
            "converted_at",
            "uploaded_at",
        ]
        read_only_fields = fields

    def get_raw_data(self, obj) -> dict:
        return obj.raw_row


class UploadSerializer(serializers.Serializer):
    file = serializers.FileField()


class ColumnAnalysisSerializer(serializers.Serializer):
    identifier_type = serializers.CharField()
    identifier_column = serializers.CharField()
    columns_mapped = serializers.IntegerField()
    mappings = serializers.DictField(
        child=serializers.CharField(allow_null=True), required=False
    )


class UploadResultSerializer(serializers.Serializer):
    detail = serializers.CharField()
    count = serializers.IntegerField()
    skipped = serializers.IntegerField()
    analysis = ColumnAnalysisSerializer()


class ClearResultSerializer(serializers.Serializer):
    detail = serializers.CharField()
    count = serializers.IntegerField()


class ConvertSerializer(serializers.Serializer):
    area = serializers.CharField(
        max_length=255, required=False, allow_blank=True, allow_null=True
    )


class ConvertResultSerializer(serializers.Serializer):
    detail = serializers.CharField()
    participant = ParticipantSerializer()
    preregistration = PreRegisteredParticipantSerializer()


class ErrorSerializer(serializers.Serializer):
    detail = serializers.CharField()
    code = serializers.CharField()
