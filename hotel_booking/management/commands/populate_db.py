from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from hotel_booking.models import Amenity, Hotel, HotelImage, Room, User

AMENITIES = [
    'WiFi', 'Pool', 'Gym', 'Spa', 'Restaurant', 'Bar', 'Parking', 'Room Service',
    'Air Conditioning', 'Pet Friendly', 'Airport Shuttle', 'Business Center',
]

HOTELS = [
    {
        'name': 'Grand Plaza Hotel',
        'city': 'New York',
        'address': '123 Broadway St, Manhattan, NY 10001',
        'description': 'Luxurious hotel in the heart of Manhattan with city views.',
        'latitude': 40.7489,
        'longitude': -73.9680,
        'main_image': 'https://images.pexels.com/photos/338504/pexels-photo-338504.jpeg',
        'amenities': ['WiFi', 'Gym', 'Restaurant', 'Bar', 'Room Service'],
    },
    {
        'name': 'Oceanview Resort',
        'city': 'Miami',
        'address': '456 Beach Blvd, Miami Beach, FL 33139',
        'description': 'Beachfront resort with direct ocean access.',
        'latitude': 25.7907,
        'longitude': -80.1300,
        'main_image': 'https://images.pexels.com/photos/271624/pexels-photo-271624.jpeg',
        'amenities': ['WiFi', 'Pool', 'Spa', 'Bar', 'Parking'],
    },
    {
        'name': 'Mountain Lodge',
        'city': 'Denver',
        'address': '789 Summit Ave, Denver, CO 80202',
        'description': 'Mountain retreat with views of the Rocky Mountains.',
        'latitude': 39.7392,
        'longitude': -104.9903,
        'main_image': 'https://images.pexels.com/photos/271619/pexels-photo-271619.jpeg',
        'amenities': ['WiFi', 'Parking', 'Pet Friendly', 'Restaurant'],
    },
    {
        'name': 'Downtown Business Hotel',
        'city': 'Chicago',
        'address': '321 Michigan Ave, Chicago, IL 60601',
        'description': 'Modern business hotel in downtown Chicago.',
        'latitude': 41.8781,
        'longitude': -87.6298,
        'main_image': 'https://images.pexels.com/photos/261102/pexels-photo-261102.jpeg',
        'amenities': ['WiFi', 'Gym', 'Business Center', 'Airport Shuttle', 'Air Conditioning'],
    },
]

ROOMS = [
    {'name': 'Standard Room', 'room_type': 'STANDARD', 'capacity': 2,
     'price_per_night': Decimal('120.00'), 'total_rooms': 10,
     'description': 'Comfortable room with a queen bed'},
    {'name': 'Deluxe Room', 'room_type': 'DELUXE', 'capacity': 3,
     'price_per_night': Decimal('180.00'), 'total_rooms': 6,
     'description': 'Spacious room with a king bed and city view'},
    {'name': 'Family Suite', 'room_type': 'SUITE', 'capacity': 4,
     'price_per_night': Decimal('260.00'), 'total_rooms': 3,
     'description': 'Two-bedroom suite with a kitchenette'},
]


class Command(BaseCommand):
    help = 'Populate database with sample hotel data'

    @transaction.atomic
    def handle(self, *args, **options):
        amenities = {name: Amenity.objects.get_or_create(name=name)[0] for name in AMENITIES}

        if not User.objects.filter(email='admin@hotel.com').exists():
            User.objects.create_superuser(email='admin@hotel.com', password='admin123', name='Admin')
            self.stdout.write('Created admin user: admin@hotel.com')
        if not User.objects.filter(email='user@hotel.com').exists():
            User.objects.create_user(email='user@hotel.com', password='user123', name='Demo User')
            self.stdout.write('Created demo user: user@hotel.com')

        for hotel_data in HOTELS:
            hotel_data = dict(hotel_data)
            hotel_amenities = hotel_data.pop('amenities')
            hotel, created = Hotel.objects.get_or_create(
                name=hotel_data['name'],
                defaults=hotel_data,
            )

            if created:
                hotel.amenities.set(amenities[name] for name in hotel_amenities)
                HotelImage.objects.create(hotel=hotel, image_url=hotel.main_image)
                for room_data in ROOMS:
                    Room.objects.create(hotel=hotel, **room_data)
                self.stdout.write(f'Created hotel: {hotel.name} - {hotel.city}')
            else:
                self.stdout.write(f'Hotel {hotel.name} already exists')

        self.stdout.write(
            self.style.SUCCESS('Successfully populated database with sample data')
        )
