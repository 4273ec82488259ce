"""
Management command to find upload files that no Media record references
Usage: python manage.py cleanup_orphan_media [--delete]
"""
import os

from django.core.management.base import BaseCommand

from backend.media.models import Media
from backend.media.utils import THUMBNAIL_PREFIX, upload_dir, remove_upload


def find_orphan_files():
    """Names of files in the upload directory without a Media record"""
    directory = upload_dir()
    if not os.path.isdir(directory):
        return []
    known = set(Media.objects.values_list('filename', flat=True))
    orphans = []
    for name in sorted(os.listdir(directory)):
        if not os.path.isfile(os.path.join(directory, name)):
            continue
        owner = name[len(THUMBNAIL_PREFIX):] if name.startswith(THUMBNAIL_PREFIX) else name
        if owner not in known:
            orphans.append(name)
    return orphans


class Command(BaseCommand):
    help = "Reports (and with --delete removes) uploaded files with no media record"

    def add_arguments(self, parser):
        parser.add_argument(
            '--delete',
            action='store_true',
            help='Delete the orphan files instead of only listing them',
        )

    def handle(self, *args, **options):
        orphans = find_orphan_files()
        if not orphans:
            self.stdout.write(self.style.SUCCESS('No orphan files found'))
            return

        for name in orphans:
            self.stdout.write(f'  {name}')

        if not options['delete']:
            self.stdout.write(self.style.WARNING(f'{len(orphans)} orphan files found; rerun with --delete to remove them'))
            return

        removed = sum(1 for name in orphans if remove_upload(name))
        self.stdout.write(self.style.SUCCESS(f'Removed {removed} of {len(orphans)} orphan files'))
