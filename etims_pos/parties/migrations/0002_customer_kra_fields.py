from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('parties', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='customer',
            name='kra_status',
            field=models.CharField(choices=[('pending', 'Not Registered'), ('ok', 'Registered'), ('error', 'Registration Failed')], default='pending', max_length=20),
        ),
        migrations.AddField(
            model_name='customer',
            name='kra_error',
            field=models.TextField(blank=True),
        ),
        migrations.AddField(
            model_name='customer',
            name='kra_customer_no',
            field=models.CharField(blank=True, help_text='custNo sent with saveBhfCustomer', max_length=20),
        ),
    ]
