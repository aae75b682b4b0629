from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Amenity, Booking, Hotel, HotelImage, Review, Room, RoomImage, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    ordering = ['email']
    list_display = ['email', 'name', 'role', 'status', 'is_staff']
    list_filter = ['role', 'status', 'is_staff']
    search_fields = ['email', 'name']
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Profile', {'fields': ('name', 'phone', 'role', 'status')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
    )
    add_fieldsets = (
        (None, {'classes': ('wide',), 'fields': ('email', 'name', 'password1', 'password2')}),
    )


class HotelImageInline(admin.TabularInline):
    model = HotelImage
    extra = 0


class RoomInline(admin.TabularInline):
    model = Room
    extra = 0


@admin.register(Hotel)
class HotelAdmin(admin.ModelAdmin):
    list_display = ['name', 'city', 'rating']
    search_fields = ['name', 'city']
    filter_horizontal = ['amenities']
    inlines = [RoomInline, HotelImageInline]


class RoomImageInline(admin.TabularInline):
    model = RoomImage
    extra = 0


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ['name', 'hotel', 'room_type', 'price_per_night', 'total_rooms']
    list_filter = ['room_type']
    inlines = [RoomImageInline]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'hotel', 'room', 'check_in', 'check_out', 'rooms_count', 'status']
    list_filter = ['status']
    date_hierarchy = 'check_in'


admin.site.register(Amenity)
admin.site.register(Review)
