import django.db.models.deletion
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Ingredient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, unique=True)),
                ('description', models.TextField(blank=True)),
                ('unit', models.CharField(default='piece', help_text='Free-form unit (kg, litre, piece, ...)', max_length=30)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('cost_per_unit', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('current_stock', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=12)),
                ('tax_ty_cd', models.CharField(choices=[('A', 'A - Exempt'), ('B', 'B - Standard VAT 16%'), ('C', 'C - Zero Rated'), ('D', 'D - Non-VAT'), ('E', 'E - Reduced VAT 8%')], default='B', max_length=1)),
                ('item_cd', models.CharField(blank=True, help_text='KRA item code', max_length=20, null=True, unique=True)),
                ('item_cls_cd', models.CharField(blank=True, help_text='KRA item classification code', max_length=10, null=True)),
                ('kra_status', models.CharField(choices=[('pending', 'Not Registered'), ('ok', 'Registered'), ('error', 'Registration Failed')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'ingredients',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Recipe',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, unique=True)),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('unit', models.CharField(default='plate', max_length=30)),
                ('price', models.DecimalField(decimal_places=2, help_text='Tax-inclusive selling price', max_digits=12)),
                ('tax_ty_cd', models.CharField(choices=[('A', 'A - Exempt'), ('B', 'B - Standard VAT 16%'), ('C', 'C - Zero Rated'), ('D', 'D - Non-VAT'), ('E', 'E - Reduced VAT 8%')], default='B', max_length=1)),
                ('is_active', models.BooleanField(default=True)),
                ('item_cd', models.CharField(blank=True, help_text='KRA item code', max_length=20, null=True, unique=True)),
                ('item_cls_cd', models.CharField(blank=True, help_text='KRA item classification code', max_length=10, null=True)),
                ('kra_status', models.CharField(choices=[('pending', 'Not Registered'), ('ok', 'Registered'), ('error', 'Registration Failed')], default='pending', max_length=20)),
                ('kra_composition_status', models.CharField(choices=[('pending', 'Not Sent'), ('ok', 'Sent'), ('partial_success', 'Partially Sent')], default='pending', max_length=20)),
                ('kra_composition_no', models.PositiveIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'recipes',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='RecipeComponent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=10)),
                ('ingredient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='recipe_components', to='catalog.ingredient')),
                ('recipe', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='components', to='catalog.recipe')),
            ],
            options={
                'db_table': 'recipe_components',
                'ordering': ['id'],
                'constraints': [models.UniqueConstraint(fields=('recipe', 'ingredient'), name='uniq_recipe_ingredient')],
            },
        ),
    ]
