from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('queue_system', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='token',
            name='reference_number',
            field=models.CharField(blank=True, max_length=200, null=True, unique=True),
        ),
    ]
