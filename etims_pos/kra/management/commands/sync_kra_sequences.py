"""
Management command to realign KRA number sequences with the data already stored.
"""
from django.core.management.base import BaseCommand, CommandError

from etims_pos.kra.sequences import SEQUENCE_NAMES, sync_sequences, sync_target, table_maximum
from etims_pos.kra.models import SequenceCounter


class Command(BaseCommand):
    help = 'Raise KRA sequence counters to the highest number found in their tables'

    def add_arguments(self, parser):
        parser.add_argument(
            '--sequence',
            action='append',
            choices=SEQUENCE_NAMES,
            help='Only sync this sequence (may be repeated)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would change without saving',
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Show sequences that are already in sync',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Allow counters to move down to the table maximum (numbers may be reissued)',
        )

    def handle(self, *args, **options):
        names = options['sequence'] or SEQUENCE_NAMES
        dry_run = options['dry_run']
        verbose = options['verbose']
        force = options['force']

        self.stdout.write(self.style.SUCCESS('Syncing KRA sequences...\n'))
        if force:
            self.stdout.write(self.style.WARNING('--force: counters may move down and reissue numbers'))

        if dry_run:
            results = {}
            for name in names:
                counter = SequenceCounter.objects.filter(name=name).first()
                old = counter.last_value if counter else 0
                results[name] = (old, sync_target(old, table_maximum(name), force))
        else:
            try:
                results = sync_sequences(names, force=force)
            except Exception as e:
                raise CommandError(f'Failed to sync sequences: {e}')

        changed = 0
        for name, (old, new) in results.items():
            if old != new:
                changed += 1
                verb = 'would change' if dry_run else 'changed'
                self.stdout.write(self.style.WARNING(f'   {name}: {verb} {old} -> {new}'))
            elif verbose:
                self.stdout.write(f'   {name}: {old} (in sync)')

        if changed == 0:
            self.stdout.write(self.style.SUCCESS('✓ All sequences already in sync'))
        elif dry_run:
            self.stdout.write(self.style.WARNING(f'\n{changed} sequence(s) would be updated (dry run)'))
        else:
            self.stdout.write(self.style.SUCCESS(f'\n✓ Updated {changed} sequence(s)'))
