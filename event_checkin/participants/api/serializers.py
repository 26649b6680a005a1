from rest_framework import serializers

from event_checkin.participants.models import Participant


class ParticipantSerializer(serializers.ModelSerializer):
    created_by = serializers.SerializerMethodField()

    class Meta:
        model = Participant
        fields = [
            "id",
            "event",
            "full_name",
            "email",
            "area",
            "national_id",
            "participant_type",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields

    def get_created_by(self, obj) -> str | None:
        user = obj.created_by
        return user.display_name if user else None


class QuickAddSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    email = serializers.CharField(max_length=320)
    area = serializers.CharField(max_length=255)
    national_id = serializers.CharField(
        max_length=64, required=False, allow_blank=True, allow_null=True
    )
    participant_type = serializers.ChoiceField(
        choices=Participant.ParticipantType.choices,
        default=Participant.ParticipantType.PARTICIPANT,
    )

    def validate_email(self, value):
        value = value.strip()
        if "@" not in value:
            msg = "Enter a valid email address."
            raise serializers.ValidationError(msg)
        return value


class AreaCountSerializer(serializers.Serializer):
    area = serializers.CharField()
    count = serializers.IntegerField()


class PreRegisteredCountsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    registered = serializers.IntegerField()
    pending = serializers.IntegerField()


class EventStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_area = AreaCountSerializer(many=True)
    preregistered = PreRegisteredCountsSerializer()
