import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='IssuanceRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('recipient_name', models.CharField(db_column='student_name', db_index=True, help_text='Person who received the items', max_length=200)),
                ('quantity', models.PositiveIntegerField(db_column='quantity_taken', help_text='Units issued', validators=[django.core.validators.MinValueValidator(1)])),
                ('issue_date', models.DateField(help_text='Date the items were handed over')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('item', models.ForeignKey(db_column='uniform_id', db_constraint=False, help_text='Issued item; may dangle after item deletion', null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='issuances', to='inventory.stockitem')),
            ],
            options={
                'verbose_name': 'Issuance Record',
                'verbose_name_plural': 'Issuance Records',
                'db_table': 'uniform_issuances',
                'ordering': ['-created_at'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity__gt', 0)), name='issuance_quantity_positive'),
                ],
            },
        ),
    ]
