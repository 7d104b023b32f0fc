import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
        ('officers', '0001_initial'),
        ('outlets', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Token',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('token_number', models.IntegerField()),
                ('status', models.CharField(choices=[('waiting', 'Waiting'), ('in_service', 'In Service'), ('skipped', 'Skipped'), ('completed', 'Completed')], default='waiting', max_length=20)),
                ('service_types', models.JSONField(default=list)),
                ('preferred_languages', models.JSONField(blank=True, default=list)),
                ('is_priority', models.BooleanField(default=False)),
                ('counter_number', models.IntegerField(blank=True, null=True)),
                ('window_start', models.DateTimeField()),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('called_at', models.DateTimeField(blank=True, null=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('reference_number', models.CharField(blank=True, max_length=200, null=True)),
                ('account_ref', models.CharField(blank=True, max_length=100, null=True)),
                ('assigned_officer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='tokens', to='officers.officer')),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tokens', to='accounts.customer')),
                ('outlet', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tokens', to='outlets.outlet')),
            ],
            options={
                'ordering': ['token_number'],
            },
        ),
        migrations.CreateModel(
            name='Alert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('long_wait', 'Long Wait')], max_length=32)),
                ('severity', models.CharField(default='medium', max_length=16)),
                ('message', models.TextField()),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('token', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='queue_system.token')),
            ],
            options={
                'ordering': ['-created_at'],
                'unique_together': {('type', 'token')},
            },
        ),
        migrations.AddIndex(
            model_name='token',
            index=models.Index(fields=['outlet', 'status', 'created_at'], name='token_outlet_status_idx'),
        ),
        migrations.AddConstraint(
            model_name='token',
            constraint=models.UniqueConstraint(fields=('outlet', 'window_start', 'token_number'), name='unique_token_number_per_outlet_window'),
        ),
        migrations.AddConstraint(
            model_name='token',
            constraint=models.UniqueConstraint(condition=models.Q(('status__in', ['waiting', 'in_service'])), fields=('customer', 'outlet', 'window_start'), name='one_active_token_per_customer_outlet'),
        ),
    ]
