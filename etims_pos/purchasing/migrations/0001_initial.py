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
            name='Purchase',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('purchase_number', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('supplier_invoice_no', models.PositiveIntegerField(help_text='Invoice number printed on the supplier bill')),
                ('purchase_date', models.DateField()),
                ('payment_type', models.CharField(choices=[('cash', 'Cash'), ('credit', 'Credit'), ('cash_credit', 'Cash/Credit'), ('bank_check', 'Bank Check'), ('card', 'Debit & Credit Card'), ('mpesa', 'Mobile Money'), ('other', 'Other')], default='cash', max_length=20)),
                ('confirmed_at', models.DateTimeField(blank=True, help_text='When the goods were received and confirmed', null=True)),
                ('warehouse_date', models.DateField(blank=True, help_text='When the goods were put into stock', null=True)),
                ('total_tax_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Total tax printed on the supplier bill', max_digits=12)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('finalized', 'Finalized'), ('cancelled', 'Cancelled')], default='finalized', max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('kra_status', models.CharField(choices=[('pending', 'Not Submitted'), ('ok', 'Submitted'), ('error', 'Submission Failed')], default='pending', max_length=20)),
                ('kra_invoice_no', models.PositiveIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='purchases', to=settings.AUTH_USER_MODEL)),
                ('supplier', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='purchases', to='parties.supplier')),
            ],
            options={
                'db_table': 'purchases',
                'ordering': ['-purchase_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_purchase_status'),
                    models.Index(fields=['supplier', 'supplier_invoice_no'], name='idx_purchase_supplier_invc'),
                    models.Index(fields=['-purchase_date', '-created_at'], name='idx_purchase_date_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PurchaseItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=10)),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('ingredient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='purchase_items', to='catalog.ingredient')),
                ('purchase', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='purchasing.purchase')),
            ],
            options={
                'db_table': 'purchase_items',
                'ordering': ['id'],
                'indexes': [
                    models.Index(fields=['purchase', 'ingredient'], name='idx_puritem_pur_ingredient'),
                ],
            },
        ),
    ]
