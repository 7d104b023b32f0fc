from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='SMSLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('token_id', models.IntegerField(db_index=True)),
                ('event_type', models.CharField(choices=[('token_completed', 'Token Completed')], max_length=32)),
                ('phone_number', models.CharField(max_length=20)),
                ('message', models.CharField(max_length=320)),
                ('sent_at', models.DateTimeField(auto_now_add=True)),
                ('success', models.BooleanField(default=False)),
                ('provider_id', models.CharField(blank=True, max_length=200, null=True)),
                ('details', models.TextField(blank=True, null=True)),
            ],
            options={
                'unique_together': {('token_id', 'event_type')},
            },
        ),
    ]
