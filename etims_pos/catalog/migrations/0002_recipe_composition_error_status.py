from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='recipe',
            name='kra_composition_status',
            field=models.CharField(choices=[('pending', 'Not Sent'), ('ok', 'Sent'), ('partial_success', 'Partially Sent'), ('error', 'Send Failed')], default='pending', max_length=20),
        ),
    ]
