from django.urls import path

from .views import booking_payment_status, payment_return, payment_webhook

app_name = 'payments'

urlpatterns = [
    path('return/', payment_return, name='payment_return'),
    path('webhook/', payment_webhook, name='payment_webhook'),
    path('bookings/<uuid:booking_id>/status/', booking_payment_status, name='booking_payment_status'),
]
