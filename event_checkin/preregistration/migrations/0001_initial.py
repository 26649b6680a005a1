from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('events', '0001_initial'),
        ('participants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PreRegisteredParticipant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('identifier_type', models.CharField(choices=[('dni', 'National ID'), ('email', 'Email'), ('name', 'Name')], max_length=10)),
                ('identifier_value', models.CharField(max_length=255)),
                ('full_name', models.CharField(blank=True, max_length=255, null=True)),
                ('email', models.CharField(blank=True, max_length=320, null=True)),
                ('national_id', models.CharField(blank=True, max_length=64, null=True)),
                ('area', models.CharField(blank=True, max_length=255, null=True)),
                ('raw_data', models.JSONField(blank=True, default=list)),
                ('converted', models.BooleanField(default=False)),
                ('converted_at', models.DateTimeField(blank=True, null=True)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('converted_registration', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='preregistration', to='participants.participant')),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='preregistrations', to='events.event')),
            ],
            options={
                'ordering': ['converted', 'full_name', 'id'],
                'indexes': [models.Index(fields=['event', 'converted'], name='prereg_event_converted_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('identifier_value', ''), _negated=True), name='prereg_identifier_value_not_blank'),
                    models.CheckConstraint(condition=models.Q(models.Q(('converted', True), ('converted_registration__isnull', False)), models.Q(('converted', False), ('converted_registration__isnull', True)), _connector='OR'), name='prereg_converted_has_registration'),
                ],
            },
        ),
    ]
