"""Flask CLI commands for scheduled runs and operator actions."""
import click


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        from sourcing.extensions import db

        db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("enqueue-image")
    @click.argument("source_url", default="")
    @click.option("--product-id", type=int, default=None)
    def enqueue_image(source_url, product_id):
        """Add a sourcing request to the image queue."""
        from sourcing.services.queue_service import enqueue_source_request

        try:
            item = enqueue_source_request(source_url, product_id=product_id, operator="cli")
        except ValueError as e:
            raise click.ClickException(str(e))
        click.echo(f"Queued item {item.id} ({item.source_url or 'any image'})")

    @app.cli.command("process-queue")
    def process_queue():
        """Run one queue batch (for cron)."""
        from sourcing.workers.queue_processor import run_queue_batch

        result = run_queue_batch()
        click.echo(
            f"Processed: {result['processed']}  Failed: {result['failed']}  "
            f"Total: {result['total']}"
        )

    @app.cli.command("scan-images")
    def scan_images():
        """Source images for published products that have none."""
        from sourcing.workers.bulk_scanner import run_bulk_scan

        result = run_bulk_scan()
        click.echo(
            f"Images assigned: {result['imagesAssigned']}  "
            f"Low confidence: {result['lowConfidenceFlagged']}"
        )

    @app.cli.command("queue-stats")
    def queue_stats():
        """Show queue item counts by status."""
        from sourcing.services.queue_service import queue_stats as get_stats

        s = get_stats()
        click.echo(f"Total items: {s.pop('total')}")
        for status, count in sorted(s.items()):
            click.echo(f"  {status}: {count}")

    @app.cli.command("review")
    @click.argument("action", type=click.Choice(["approve", "reject", "rescrape"]))
    @click.argument("product_id", type=int)
    def review(action, product_id):
        """Approve, reject or re-scrape a product's images."""
        from sourcing.services import review_service

        handlers = {
            "approve": review_service.approve,
            "reject": review_service.reject,
            "rescrape": review_service.request_rescrape,
        }
        try:
            product = handlers[action](product_id, operator="cli")
        except ValueError as e:
            raise click.ClickException(str(e))
        if product is None:
            raise click.ClickException(f"Product {product_id} not found")
        click.echo(f"{action}: product {product.id} is now {product.review_state}")
