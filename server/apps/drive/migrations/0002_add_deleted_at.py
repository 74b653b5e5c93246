"""Add retention tracking to trashed folders and files.

The column is nullable: rows trashed before this migration have no
deleted_at and are never picked up by the retention sweep.
"""

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('drive', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='folder',
            name='deleted_at',
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name='file',
            name='deleted_at',
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AddIndex(
            model_name='folder',
            index=models.Index(fields=['is_deleted', 'deleted_at'], name='folders_trash_idx'),
        ),
        migrations.AddIndex(
            model_name='file',
            index=models.Index(fields=['is_deleted', 'deleted_at'], name='files_trash_idx'),
        ),
    ]
