from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework import serializers

from .models import Amenity, Booking, Hotel, HotelImage, Review, Room, RoomImage

User = get_user_model()


class ImageUrlListField(serializers.ListField):
    """Image rows in, plain URL strings out."""

    child = serializers.URLField(max_length=500)

    def to_representation(self, data):
        return [image.image_url for image in data.all()]


# Users and auth

class UserSerializer(serializers.ModelSerializer):
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'phone', 'role', 'status', 'createdAt']
        read_only_fields = ['id', 'email', 'role', 'status']


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class RefreshSerializer(serializers.Serializer):
    refreshToken = serializers.CharField()


class ProfileSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=150, required=False)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)

    class Meta:
        model = User
        fields = ['name', 'phone']


class PasswordChangeSerializer(serializers.Serializer):
    currentPassword = serializers.CharField(write_only=True)
    newPassword = serializers.CharField(min_length=6, write_only=True)


# Catalog

class RoomSerializer(serializers.ModelSerializer):
    hotelId = serializers.IntegerField(source='hotel_id', read_only=True)
    roomType = serializers.CharField(source='room_type', max_length=50)
    capacity = serializers.IntegerField(min_value=1)
    pricePerNight = serializers.DecimalField(
        source='price_per_night', max_digits=10, decimal_places=2, min_value=Decimal('0.01')
    )
    totalRooms = serializers.IntegerField(source='total_rooms', min_value=1)
    images = ImageUrlListField(required=False)

    class Meta:
        model = Room
        fields = ['id', 'hotelId', 'name', 'roomType', 'capacity', 'pricePerNight',
                  'totalRooms', 'description', 'images']

    def create(self, validated_data):
        images = validated_data.pop('images', [])
        with transaction.atomic():
            room = Room.objects.create(**validated_data)
            RoomImage.objects.bulk_create(RoomImage(room=room, image_url=url) for url in images)
        return room

    def update(self, instance, validated_data):
        images = validated_data.pop('images', None)
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if images is not None:
                instance.images.all().delete()
                RoomImage.objects.bulk_create(RoomImage(room=instance, image_url=url) for url in images)
        return instance


class ReviewUserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name']


class ReviewSerializer(serializers.ModelSerializer):
    user = ReviewUserSerializer(read_only=True)
    hotelId = serializers.IntegerField(source='hotel_id', read_only=True)
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'hotelId', 'user', 'rating', 'comment', 'createdAt']


class HotelListSerializer(serializers.ModelSerializer):
    mainImage = serializers.URLField(source='main_image', read_only=True)
    amenities = serializers.SlugRelatedField(many=True, read_only=True, slug_field='name')
    images = ImageUrlListField(read_only=True)
    # annotated by the catalog queryset
    startingPrice = serializers.SerializerMethodField()
    reviewCount = serializers.IntegerField(source='review_count', read_only=True)

    class Meta:
        model = Hotel
        fields = ['id', 'name', 'city', 'address', 'description', 'latitude', 'longitude',
                  'mainImage', 'rating', 'amenities', 'images', 'startingPrice', 'reviewCount']

    def get_startingPrice(self, obj):
        return obj.starting_price if obj.starting_price is not None else 0


class HotelDetailSerializer(HotelListSerializer):
    rooms = RoomSerializer(many=True, read_only=True)
    reviews = serializers.SerializerMethodField()

    class Meta(HotelListSerializer.Meta):
        fields = HotelListSerializer.Meta.fields + ['rooms', 'reviews']

    def get_reviews(self, obj):
        latest = obj.reviews.select_related('user')[:10]
        return ReviewSerializer(latest, many=True).data


class HotelWriteSerializer(serializers.ModelSerializer):
    mainImage = serializers.URLField(source='main_image', max_length=500, required=False, allow_blank=True)
    latitude = serializers.FloatField(required=False, allow_null=True)
    longitude = serializers.FloatField(required=False, allow_null=True)
    amenities = serializers.ListField(child=serializers.CharField(max_length=100), required=False, write_only=True)
    images = ImageUrlListField(required=False)

    class Meta:
        model = Hotel
        fields = ['id', 'name', 'city', 'address', 'description', 'latitude', 'longitude',
                  'mainImage', 'rating', 'amenities', 'images']
        read_only_fields = ['id', 'rating']

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['amenities'] = [amenity.name for amenity in instance.amenities.all()]
        return data

    def _set_amenities(self, hotel, names):
        amenities = [Amenity.objects.get_or_create(name=name)[0] for name in names]
        hotel.amenities.set(amenities)

    def _set_images(self, hotel, urls):
        hotel.images.all().delete()
        HotelImage.objects.bulk_create(HotelImage(hotel=hotel, image_url=url) for url in urls)

    def create(self, validated_data):
        amenities = validated_data.pop('amenities', [])
        images = validated_data.pop('images', [])
        with transaction.atomic():
            hotel = Hotel.objects.create(**validated_data)
            self._set_amenities(hotel, amenities)
            self._set_images(hotel, images)
        return hotel

    def update(self, instance, validated_data):
        amenities = validated_data.pop('amenities', None)
        images = validated_data.pop('images', None)
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if amenities is not None:
                self._set_amenities(instance, amenities)
            if images is not None:
                self._set_images(instance, images)
        return instance


# Bookings

class AvailabilityQuerySerializer(serializers.Serializer):
    checkIn = serializers.DateField()
    checkOut = serializers.DateField()
    roomId = serializers.IntegerField()
    rooms = serializers.IntegerField(min_value=1, default=1)


class BookingCreateSerializer(serializers.Serializer):
    hotelId = serializers.IntegerField()
    roomId = serializers.IntegerField()
    checkIn = serializers.DateField()
    checkOut = serializers.DateField()
    guests = serializers.IntegerField(min_value=1)
    roomsCount = serializers.IntegerField(min_value=1)


class BookingHotelSerializer(serializers.ModelSerializer):
    mainImage = serializers.URLField(source='main_image', read_only=True)

    class Meta:
        model = Hotel
        fields = ['id', 'name', 'address', 'city', 'mainImage']


class BookingRoomSerializer(serializers.ModelSerializer):
    roomType = serializers.CharField(source='room_type', read_only=True)
    pricePerNight = serializers.DecimalField(
        source='price_per_night', max_digits=10, decimal_places=2, read_only=True
    )

    class Meta:
        model = Room
        fields = ['id', 'name', 'roomType', 'pricePerNight']


class BookingSerializer(serializers.ModelSerializer):
    userId = serializers.IntegerField(source='user_id', read_only=True)
    hotelId = serializers.IntegerField(source='hotel_id', read_only=True)
    roomId = serializers.IntegerField(source='room_id', read_only=True)
    hotel = BookingHotelSerializer(read_only=True)
    room = BookingRoomSerializer(read_only=True)
    checkIn = serializers.DateField(source='check_in', read_only=True)
    checkOut = serializers.DateField(source='check_out', read_only=True)
    roomsCount = serializers.IntegerField(source='rooms_count', read_only=True)
    totalAmount = serializers.DecimalField(
        source='total_amount', max_digits=12, decimal_places=2, read_only=True
    )
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Booking
        fields = ['id', 'userId', 'hotelId', 'roomId', 'hotel', 'room', 'checkIn', 'checkOut',
                  'guests', 'roomsCount', 'totalAmount', 'status', 'createdAt', 'updatedAt']
        read_only_fields = fields


class BookingUserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'email']


class AdminBookingSerializer(BookingSerializer):
    user = BookingUserSerializer(read_only=True)

    class Meta(BookingSerializer.Meta):
        fields = BookingSerializer.Meta.fields + ['user']
        read_only_fields = fields


class BookingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Booking.Status.choices)
