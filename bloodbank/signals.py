from django.db.models.signals import post_save
from django.dispatch import Signal, receiver
from .models import User, DonorProfile, Role

# ----------------- Domain events -----------------
# Sent with send_robust() after the surrounding transaction commits; receivers
# must not be able to break the core.

# kwargs: donation, status
donation_status_changed = Signal()

# kwargs: request, status
request_status_changed = Signal()

# kwargs: blood_type, alert
low_stock_alert = Signal()


# ----------------- Create donor profile -----------------
@receiver(post_save, sender=User)
def create_profile_for_donor(sender, instance, created, **kwargs):
    if created and instance.role == Role.DONOR:
        DonorProfile.objects.get_or_create(user=instance)
