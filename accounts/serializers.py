"""
Serializers for users.
"""
from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for creating and editing users.

    password is write-only and hashed through Django's auth machinery.
    """
    password = serializers.CharField(write_only=True, required=False, min_length=8)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'phone',
            'address', 'gst_number', 'role', 'margin_percent', 'is_active',
            'password', 'date_joined'
        ]
        read_only_fields = ['id', 'is_active', 'date_joined']

    def validate(self, attrs):
        email = attrs.get('email')
        phone = attrs.get('phone')
        duplicates = User.objects.none()
        if email:
            duplicates = duplicates | User.objects.filter(email__iexact=email)
        if phone:
            duplicates = duplicates | User.objects.filter(phone=phone)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError("Email or Phone already exists")

        if self.instance is None and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'This field is required.'})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        return user

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        user = super().update(instance, validated_data)
        if password:
            user.set_password(password)
            user.save(update_fields=['password'])
        return user


class UserMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'role', 'is_active']
