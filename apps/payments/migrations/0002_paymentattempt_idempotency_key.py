from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="paymentattempt",
            name="idempotency_key",
            field=models.CharField(blank=True, db_index=True, max_length=64),
        ),
    ]
