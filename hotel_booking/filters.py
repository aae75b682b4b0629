import django_filters
from django.db.models import Exists, OuterRef

from .models import Amenity, Booking, Hotel, Room


class HotelFilterSet(django_filters.FilterSet):
    """Catalog search filters, named after the query parameters the frontend sends."""

    city = django_filters.CharFilter(field_name='city', lookup_expr='icontains')
    minRating = django_filters.NumberFilter(field_name='rating', lookup_expr='gte')
    minPrice = django_filters.NumberFilter(method='filter_price')
    maxPrice = django_filters.NumberFilter(method='filter_price')
    amenities = django_filters.CharFilter(method='filter_amenities')

    class Meta:
        model = Hotel
        fields = ['city']

    def filter_price(self, queryset, name, value):
        # both bounds have to hold for the same room, see filter_queryset
        return queryset

    def filter_amenities(self, queryset, name, value):
        names = [item.strip() for item in value.split(',') if item.strip()]
        if not names:
            return queryset
        matching = Amenity.objects.filter(hotels=OuterRef('pk'), name__in=names)
        return queryset.filter(Exists(matching))

    def filter_queryset(self, queryset):
        queryset = super().filter_queryset(queryset)
        bounds = {}
        min_price = self.form.cleaned_data.get('minPrice')
        max_price = self.form.cleaned_data.get('maxPrice')
        if min_price is not None:
            bounds['price_per_night__gte'] = min_price
        if max_price is not None:
            bounds['price_per_night__lte'] = max_price
        if bounds:
            priced_room = Room.objects.filter(hotel=OuterRef('pk'), **bounds)
            queryset = queryset.filter(Exists(priced_room))
        return queryset


class BookingFilterSet(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Booking.Status.choices)

    class Meta:
        model = Booking
        fields = ['status']
