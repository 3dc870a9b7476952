"""Data-health reporting for pipeline results (summary, HTML)."""

import logging
from collections import Counter
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from ctfstats import FULL_TEAM, MIX, STACK_3PLUS, UNAFFILIATED
from ctfstats.pipeline import PipelineResult

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / 'templates'

TOP_UNRESOLVED = 20


def compute_health_stats(result: PipelineResult) -> dict:
    """Compute the counts shown in the data-health summary."""
    diag = result.diagnostics
    matches = result.matches
    all_matches = result.all_matches

    class_counts = Counter({FULL_TEAM: 0, STACK_3PLUS: 0, MIX: 0})
    for m in matches:
        for cls in (m.class_red, m.class_blue):
            if cls:
                class_counts[cls] += 1

    dates = sorted(m.date_local for m in matches if m.date_local)
    unaffiliated = sorted({
        p.canonical for p in result.player_rows
        if p.resolved and p.team_membership == UNAFFILIATED
    })
    reasons = Counter(u.reason for u in diag.roles_still_unlinked)

    return {
        'total': len(all_matches),
        'in_scope': len(matches),
        'excluded': len(all_matches) - len(matches),
        'player_rows': len(result.player_rows),
        'all_4v4': sum(1 for m in all_matches if m.is_4v4),
        'scoped_4v4': sum(1 for m in matches if m.is_4v4),
        'date_range': f'{dates[0]} bis {dates[-1]}' if dates else 'N/A',
        'qual_loose': sum(1 for m in matches if m.qualifies_loose),
        'qual_strict': sum(1 for m in matches if m.qualifies_strict),
        'qual_h2h': sum(1 for m in matches if m.qualifies_h2h),
        'qual_standings': sum(1 for m in matches if m.qualifies_standings),
        'class_counts': dict(class_counts),
        'maps': Counter(m.map for m in matches).most_common(),
        'unresolved': len(diag.unresolved_players),
        'top_unresolved': list(diag.unresolved_nick_counts.items())[:TOP_UNRESOLVED],
        'unaffiliated': unaffiliated,
        'missing_identity_key': sorted({
            p.canonical for p in result.player_rows if p.resolved and not p.identity_key
        }),
        'duration_errors': diag.duration_parse_errors,
        'score_errors': diag.score_parse_errors,
        'date_invalid': diag.date_invalid_rows,
        'roles_total': diag.total_role_entries,
        'roles_merged': diag.roles_merged,
        'roles_linked': diag.roles_linked_by_fallback,
        'roles_orphaned': len(diag.orphaned_roles),
        'roles_unlinked': len(diag.unlinked_roles),
        'roles_invalid_score': reasons.get('invalid_score', 0),
        'roles_no_match': reasons.get('no_match', 0),
        'roles_ambiguous': reasons.get('ambiguous', 0),
        'roles_duplicate': diag.duplicate_roles,
        'alias_collisions': len(diag.registry_integrity.alias_collisions),
        'identity_key_collisions': len(diag.registry_integrity.identity_key_collisions),
        'key_mismatches': len(diag.registry_integrity.canonical_key_mismatches),
        'pairs': len(result.pair_stats),
        'lineups': len(result.lineup_stats),
        'data_hash': diag.data_hash,
    }


def write_health_report(result: PipelineResult, output_path: Path, title: str = '') -> None:
    """Write the data-health report as HTML using Jinja2.

    Args:
        result: Pipeline result.
        output_path: Path for the output HTML file.
        title: Name of the dataset (for the report title).
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
    )
    template = env.get_template('health.html')

    html = template.render(
        title=title,
        stats=compute_health_stats(result),
        diagnostics=result.diagnostics,
        lineups=result.lineup_stats,
        pairs=result.pair_stats,
    )

    output_path.write_text(html, encoding='utf-8')
    log.info("HTML-Report geschrieben: %s", output_path)


def print_summary(result: PipelineResult, title: str = '') -> None:
    """Print a data-health summary to stdout.

    Args:
        result: Pipeline result.
        title: Name of the dataset.
    """
    stats = compute_health_stats(result)

    print(f"\n=== Data Health: {title} [{stats['data_hash']}] ===")
    print(f"Matches gesamt:            {stats['total']:>5}")
    print(f"Im Scope (ab {result.diagnostics.scope_date}):  {stats['in_scope']:>5}")
    print(f"Davon 4v4:                 {stats['scoped_4v4']:>5}")
    print(f"Zeitraum:                  {stats['date_range']}")
    print("---")
    print(f"Loose:                     {stats['qual_loose']:>5}")
    print(f"Strict:                    {stats['qual_strict']:>5}")
    print(f"H2H:                       {stats['qual_h2h']:>5}")
    print(f"Standings:                 {stats['qual_standings']:>5}")
    print("---")
    print(f"Unbekannte Spieler:        {stats['unresolved']:>5}")
    print(f"Ungueltige Dauer:          {stats['duration_errors']:>5}")
    print(f"Ungueltiger Spielstand:    {stats['score_errors']:>5}")
    print(f"Zeilen ohne Datum:         {stats['date_invalid']:>5}")
    print("---")
    print(f"Rollen geparst:            {stats['roles_total']:>5}")
    print(f"  - zugeordnet:            {stats['roles_merged']:>5}")
    print(f"  - per Fallback verlinkt: {stats['roles_linked']:>5}")
    print(f"  - verwaist:              {stats['roles_orphaned']:>5}")
    print(f"  - mehrdeutig:            {stats['roles_ambiguous']:>5}")
    print(f"  - kein Match:            {stats['roles_no_match']:>5}")
    print(f"  - Duplikate:             {stats['roles_duplicate']:>5}")
    print("---")
    print(f"Alias-Kollisionen:         {stats['alias_collisions']:>5}")
    print(f"Doppelte IDs:              {stats['identity_key_collisions']:>5}")
    print(f"ID-Abweichungen:           {stats['key_mismatches']:>5}")
    print()
