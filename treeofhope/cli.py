import click
from faker import Faker
from flask.cli import AppGroup
from sqlalchemy import func

from treeofhope.extensions import db
from treeofhope.models import BRIDGE_STATUSES, BridgeCampaign, Campaign

fake = Faker()

tree_cli = AppGroup("tree", help="Tree of Hope maintenance commands.")

DEMO_SLUG = "sarah"


@tree_cli.command("seed-demo")
@click.option("--leaves", default=12, show_default=True, help="Number of demo leaves.")
@click.option("--with-bridge", is_flag=True, help="Also scout and pre-build a demo Bridge record.")
@click.option("--seed", type=int, default=None, help="Faker seed for repeatable output.")
def seed_demo(leaves, with_bridge, seed):
    """🌱 Seed the demo campaign."""
    from treeofhope.services import bridge as bridge_svc
    from treeofhope.services.campaigns import add_leaf, create_campaign

    if seed is not None:
        Faker.seed(seed)

    campaign = Campaign.query.filter_by(slug=DEMO_SLUG).first()
    if campaign is None:
        campaign = create_campaign(
            {
                "title": "Sarah's Tree of Hope",
                "slug": DEMO_SLUG,
                "patient_name": "Sarah",
                "description": "Standing with Sarah through treatment, one leaf at a time.",
                "story": fake.paragraph(nb_sentences=5),
                "status": "active",
            }
        )
        click.secho(f"  ↳ created campaign {campaign.slug}", fg="yellow")

    for _ in range(leaves):
        add_leaf(campaign, fake.first_name(), fake.sentence(nb_words=12))
    click.secho(f"  ↳ {leaves} leaves added", fg="yellow")

    if with_bridge:
        name = fake.first_name()
        record = bridge_svc.scout(
            {
                "source_url": f"https://www.gofundme.com/f/{fake.slug()}",
                "title": f"Help {name} beat cancer",
                "organiser_name": fake.name(),
                "raised_cents": fake.random_int(min=50_000, max=2_000_000),
                "goal_cents": 2_500_000,
                "donor_count": fake.random_int(min=5, max=400),
                "category": "Medical",
            }
        )
        built = bridge_svc.pre_build(record.id, name, f"Help {name} {fake.unique.word()}", fake.paragraph())
        click.secho(f"  ↳ bridge {record.id} pre-built as {built.slug}", fg="yellow")

    click.secho("✅ Demo data seeded!", fg="bright_green", bold=True)


@tree_cli.command("bridge-report")
def bridge_report():
    """Count Bridge records per pipeline status."""
    counts = dict(
        db.session.query(BridgeCampaign.status, func.count(BridgeCampaign.id)).group_by(BridgeCampaign.status).all()
    )
    for status in BRIDGE_STATUSES:
        click.echo(f"{status:<10} {int(counts.get(status, 0))}")
    click.echo(f"{'total':<10} {sum(int(v) for v in counts.values())}")
