import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('parties', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('customer_name', models.CharField(blank=True, max_length=200)),
                ('table_number', models.CharField(blank=True, max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('preparing', 'Preparing'), ('served', 'Served'), ('paid', 'Paid'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('discount_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='parties.customer')),
            ],
            options={
                'db_table': 'table_orders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_order_status'),
                    models.Index(fields=['-created_at'], name='idx_order_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=10)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='pos.order')),
                ('recipe', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_items', to='catalog.recipe')),
            ],
            options={
                'db_table': 'table_order_items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='SalesInvoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invc_no', models.PositiveIntegerField(unique=True)),
                ('org_invc_no', models.PositiveIntegerField(default=0, help_text='Original invoice number (refunds only)')),
                ('trd_invc_no', models.CharField(blank=True, max_length=50)),
                ('payment_method', models.CharField(choices=[('cash', 'Cash'), ('credit', 'Credit'), ('cash_credit', 'Cash/Credit'), ('bank_check', 'Bank Check'), ('card', 'Debit & Credit Card'), ('mpesa', 'M-Pesa'), ('mobile', 'Mobile Money'), ('other', 'Other')], default='cash', max_length=20)),
                ('cust_tin', models.CharField(blank=True, max_length=20)),
                ('cust_nm', models.CharField(blank=True, max_length=200)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('taxable_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('tax_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('discount_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('kra_status', models.CharField(choices=[('pending', 'Pending'), ('ok', 'Registered'), ('error', 'Failed'), ('refunded', 'Refunded')], default='pending', max_length=20)),
                ('kra_error', models.TextField(blank=True)),
                ('kra_cur_rcpt_no', models.PositiveIntegerField(blank=True, null=True)),
                ('kra_tot_rcpt_no', models.PositiveIntegerField(blank=True, null=True)),
                ('kra_intrl_data', models.CharField(blank=True, max_length=200)),
                ('kra_rcpt_sign', models.CharField(blank=True, max_length=200)),
                ('kra_sdc_date_time', models.CharField(blank=True, max_length=20)),
                ('is_refund', models.BooleanField(default=False)),
                ('refund_multiplier', models.DecimalField(blank=True, decimal_places=6, max_digits=7, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sales_invoices', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sales_invoices', to='parties.customer')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='sales_invoices', to='pos.order')),
                ('original_invoice', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='refunds', to='pos.salesinvoice')),
            ],
            options={
                'db_table': 'sales_invoices',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['kra_status'], name='idx_salesinv_kra_status'),
                    models.Index(fields=['order'], name='idx_salesinv_order'),
                ],
            },
        ),
    ]
