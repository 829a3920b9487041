from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='auditlog',
            name='action',
            field=models.CharField(choices=[('create', 'Create'), ('update', 'Update'), ('delete', 'Delete'), ('order_create', 'Order Created'), ('purchase_create', 'Purchase Created'), ('kra_purchase', 'KRA Purchase Submitted'), ('kra_sale', 'KRA Sale Submitted'), ('kra_sale_retry', 'KRA Sale Retried'), ('kra_refund', 'KRA Refund Submitted'), ('kra_item_register', 'KRA Item Registered'), ('kra_composition', 'KRA Item Composition Sent'), ('kra_stock_io', 'KRA Stock Movement Sent'), ('kra_stock_master', 'KRA Stock Master Sent'), ('kra_customer', 'KRA Customer Registered'), ('kra_device_save', 'KRA Device Credentials Saved')], max_length=50),
        ),
    ]
