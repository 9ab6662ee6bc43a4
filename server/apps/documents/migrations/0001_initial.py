from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='FileRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('owner_id', models.CharField(db_index=True, max_length=64)),
                ('name', models.CharField(help_text='Original filename, display only', max_length=255)),
                ('mime_type', models.CharField(help_text='Content type declared at upload', max_length=255)),
                ('size_bytes', models.BigIntegerField(help_text='File size in bytes at upload time')),
                ('storage_key', models.CharField(help_text='Key in storage: {owner_id}/{timestamp}_{name}', max_length=1024, unique=True)),
                ('category', models.CharField(choices=[('document', 'Document'), ('image', 'Image'), ('spreadsheet', 'Spreadsheet'), ('other', 'Other')], default='other', max_length=16)),
                ('description', models.TextField(blank=True, null=True)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('processed', models.BooleanField(default=False)),
            ],
            options={
                'verbose_name': 'File record',
                'verbose_name_plural': 'File records',
                'ordering': ['-uploaded_at'],
                'indexes': [models.Index(fields=['owner_id', '-uploaded_at'], name='documents_owner_recent_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='documents_size_non_negative'),
                ],
            },
        ),
    ]
