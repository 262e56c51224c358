"""
Custom Django model fields for sensitive data.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import models

from .encryption import DecryptionError, decrypt_string, encrypt_string

logger = logging.getLogger(__name__)


class EncryptedCharField(models.TextField):
    """
    Text column whose value is Fernet-encrypted at rest.

    `max_length` is validated on the plaintext; the ciphertext is longer
    and is stored in a TEXT column. Encrypted values cannot be filtered on.
    """

    description = "Encrypted text field"

    def __init__(self, *args, **kwargs):
        self.plaintext_max_length = kwargs.pop('max_length', None)
        super().__init__(*args, **kwargs)

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        if self.plaintext_max_length is not None:
            kwargs['max_length'] = self.plaintext_max_length
        return name, path, args, kwargs

    def from_db_value(self, value, expression, connection):
        if value is None:
            return value
        try:
            return decrypt_string(value)
        except DecryptionError:
            logger.error(f"Could not decrypt {self.model.__name__}.{self.name}")
            raise

    def get_prep_value(self, value):
        if value is None or value == '':
            return ''
        return encrypt_string(str(value))

    def to_python(self, value):
        if value is None:
            return value
        return str(value)

    def validate(self, value, model_instance):
        super().validate(value, model_instance)
        if self.plaintext_max_length and value and len(value) > self.plaintext_max_length:
            raise ValidationError(
                f"Ensure this value has at most {self.plaintext_max_length} characters."
            )
