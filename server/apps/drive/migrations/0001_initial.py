import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Folder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('is_deleted', models.BooleanField(db_index=True, default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='folders', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='children', to='drive.folder')),
            ],
            options={
                'verbose_name': 'Folder',
                'verbose_name_plural': 'Folders',
                'db_table': 'folders',
                'ordering': ['-created_at'],
                'default_manager_name': 'all_objects',
                'indexes': [models.Index(fields=['parent', 'created_by', 'name'], name='folders_parent_owner_name_idx')],
            },
        ),
        migrations.CreateModel(
            name='File',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('original_name', models.CharField(max_length=255)),
                ('locator', models.CharField(max_length=1024)),
                ('storage_backend', models.CharField(choices=[('local', 'Local filesystem'), ('object', 'Object storage')], default='local', max_length=16)),
                ('mime_type', models.CharField(default='application/octet-stream', max_length=255)),
                ('size', models.BigIntegerField(default=0, help_text='File size in bytes')),
                ('is_deleted', models.BooleanField(db_index=True, default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='files', to=settings.AUTH_USER_MODEL)),
                ('folder', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='files', to='drive.folder')),
            ],
            options={
                'verbose_name': 'File',
                'verbose_name_plural': 'Files',
                'db_table': 'files',
                'ordering': ['-created_at'],
                'default_manager_name': 'all_objects',
                'indexes': [models.Index(fields=['folder', 'created_by', 'name'], name='files_folder_owner_name_idx')],
            },
        ),
        migrations.CreateModel(
            name='Permission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('resource_id', models.PositiveBigIntegerField()),
                ('resource_type', models.CharField(choices=[('folder', 'Folder'), ('file', 'File')], max_length=16)),
                ('can_read', models.BooleanField(default=False)),
                ('can_download', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='drive_permissions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Permission',
                'verbose_name_plural': 'Permissions',
                'db_table': 'permissions',
                'indexes': [models.Index(fields=['resource_type', 'resource_id'], name='permissions_resource_idx')],
                'constraints': [models.UniqueConstraint(fields=('user', 'resource_id', 'resource_type'), name='permissions_user_resource_unique')],
            },
        ),
        migrations.CreateModel(
            name='FavouriteFolder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('folder', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favourites', to='drive.folder')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favourite_folders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Favourite folder',
                'verbose_name_plural': 'Favourite folders',
                'db_table': 'user_favourite_folders',
                'constraints': [models.UniqueConstraint(fields=('user', 'folder'), name='favourite_folders_user_folder_unique')],
            },
        ),
        migrations.CreateModel(
            name='FavouriteFile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('file', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favourites', to='drive.file')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favourite_files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Favourite file',
                'verbose_name_plural': 'Favourite files',
                'db_table': 'user_favourite_files',
                'constraints': [models.UniqueConstraint(fields=('user', 'file'), name='favourite_files_user_file_unique')],
            },
        ),
    ]
