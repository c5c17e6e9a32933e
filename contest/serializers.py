# contest/serializers.py
from rest_framework import serializers

from common.enums import SubmissionType
from .models import AuditLog, Round


class AnswersField(serializers.JSONField):
    """{question_id: letter} or [{question_id, selected_option}]."""

    def to_internal_value(self, data):
        data = super().to_internal_value(data)
        if data in (None, ""):
            return {}
        if not isinstance(data, (dict, list)):
            raise serializers.ValidationError("answers must be an object or an array.")
        return data


class EnterSerializer(serializers.Serializer):
    token = serializers.UUIDField(required=False)


class RoundRefSerializer(serializers.Serializer):
    round = serializers.IntegerField(required=False, min_value=1)


class ProgressSerializer(RoundRefSerializer):
    answers = AnswersField(required=False, default=dict)
    position = serializers.IntegerField(required=False, min_value=0)


class SubmitSerializer(RoundRefSerializer):
    answers = AnswersField(required=False, default=dict)
    submission_type = serializers.CharField(required=False, allow_blank=True, default=SubmissionType.MANUAL)


class ViolationSerializer(RoundRefSerializer):
    answers = AnswersField(required=False, default=dict)


class ShortlistSerializer(serializers.Serializer):
    top_n = serializers.IntegerField(required=False, min_value=1)


class RoundUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(required=False, max_length=200, allow_blank=True)
    duration_seconds = serializers.IntegerField(required=False, min_value=30, max_value=4 * 3600)
    question_count = serializers.IntegerField(required=False, min_value=1)
    qualify_count = serializers.IntegerField(required=False, min_value=1)
    shuffle_questions = serializers.BooleanField(required=False)


class ResetRoundSerializer(serializers.Serializer):
    confirm = serializers.CharField()

    def validate_confirm(self, value):
        if value != "RESET_ROUND":
            raise serializers.ValidationError('Type "RESET_ROUND" to confirm.')
        return value


class RoundSerializer(serializers.ModelSerializer):
    class Meta:
        model = Round
        fields = (
            "id", "number", "title", "status", "duration_seconds", "question_count",
            "qualify_count", "shuffle_questions", "started_at", "ends_at", "ended_at",
            "shortlisting_completed", "shortlisted_at",
        )
        read_only_fields = fields


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = ("id", "event_type", "description", "round_number", "actor", "metadata", "created_at")
        read_only_fields = fields
