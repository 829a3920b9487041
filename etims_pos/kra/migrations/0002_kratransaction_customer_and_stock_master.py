import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('kra', '0001_initial'),
        ('parties', '0002_customer_kra_fields'),
    ]

    operations = [
        migrations.AddField(
            model_name='kratransaction',
            name='customer',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='kra_transactions', to='parties.customer'),
        ),
        migrations.AlterField(
            model_name='kratransaction',
            name='transaction_type',
            field=models.CharField(choices=[('purchase', 'Purchase'), ('sale', 'Sale'), ('refund', 'Refund'), ('item_composition', 'Item Composition'), ('item_registration', 'Item Registration'), ('stock_io', 'Stock Movement'), ('stock_master', 'Stock Master'), ('customer', 'Branch Customer')], max_length=30),
        ),
    ]
