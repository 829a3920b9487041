import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('pos', '0001_initial'),
        ('purchasing', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='SequenceCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, unique=True)),
                ('last_value', models.PositiveBigIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'kra_sequences',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='DeviceCredential',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('tin', models.CharField(max_length=20)),
                ('bhf_id', models.CharField(default='00', max_length=2)),
                ('cmc_key', models.CharField(max_length=255)),
                ('dvc_id', models.CharField(blank=True, max_length=50)),
                ('sdc_id', models.CharField(blank=True, max_length=50)),
                ('mrc_no', models.CharField(blank=True, max_length=50)),
                ('dvc_srl_no', models.CharField(blank=True, max_length=100)),
                ('is_active', models.BooleanField(default=True)),
                ('kra_response', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='kra_device_credentials', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'kra_device_credentials',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='KraTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_type', models.CharField(choices=[('purchase', 'Purchase'), ('sale', 'Sale'), ('refund', 'Refund'), ('item_composition', 'Item Composition'), ('item_registration', 'Item Registration'), ('stock_io', 'Stock Movement')], max_length=30)),
                ('invoice_no', models.PositiveIntegerField(blank=True, help_text='Locally allocated invoice / composition / SAR number', null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('success', 'Success'), ('error', 'Error'), ('partial_success', 'Partial Success')], default='pending', max_length=20)),
                ('items_data', models.JSONField(blank=True, default=list)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('tax_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('request_payload', models.JSONField(blank=True, default=dict)),
                ('response_data', models.JSONField(blank=True, null=True)),
                ('result_code', models.CharField(blank=True, max_length=10)),
                ('result_message', models.TextField(blank=True)),
                ('error_message', models.TextField(blank=True)),
                ('attempt', models.PositiveSmallIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='kra_transactions', to=settings.AUTH_USER_MODEL)),
                ('ingredient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='kra_transactions', to='catalog.ingredient')),
                ('purchase', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='kra_transactions', to='purchasing.purchase')),
                ('recipe', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='kra_transactions', to='catalog.recipe')),
                ('sales_invoice', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='kra_transactions', to='pos.salesinvoice')),
            ],
            options={
                'db_table': 'kra_transactions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['transaction_type', 'status'], name='idx_kratx_type_status'),
                    models.Index(fields=['transaction_type', 'invoice_no'], name='idx_kratx_type_invoice'),
                    models.Index(fields=['-created_at'], name='idx_kratx_created'),
                ],
            },
        ),
    ]
