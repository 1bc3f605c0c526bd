from rest_framework import serializers

from attendance.claims import PhotoReference, build_claim
from attendance.models import AttendanceEvent


class PhotoMetadataSerializer(serializers.Serializer):
    fileId = serializers.CharField(max_length=255)
    url = serializers.URLField(max_length=1024)
    fileSize = serializers.IntegerField(min_value=0)


class FaceDataSerializer(serializers.Serializer):
    # Shape is checked by the ingestion service so it can answer with InvalidFaceData.
    descriptor = serializers.JSONField(required=False, allow_null=True)
    timestamp = serializers.DateTimeField(required=False, allow_null=True)
    photoMetadata = PhotoMetadataSerializer(required=False, allow_null=True)

    def to_claim(self):
        data = self.validated_data
        metadata = data.get("photoMetadata")
        photo = None
        if metadata:
            photo = PhotoReference(
                file_id=metadata["fileId"],
                url=metadata["url"],
                file_size=metadata["fileSize"],
            )
        return build_claim(data.get("descriptor"), captured_at=data.get("timestamp"), photo=photo)


class AttendanceUserSerializer(serializers.Serializer):
    username = serializers.CharField()
    fullName = serializers.CharField(source="full_name")


class AttendanceEventSerializer(serializers.ModelSerializer):
    hasPhoto = serializers.BooleanField(source="has_photo", read_only=True)
    user = AttendanceUserSerializer(read_only=True)

    class Meta:
        model = AttendanceEvent
        fields = ["id", "timestamp", "status", "hasPhoto", "user"]
