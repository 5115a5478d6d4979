"""
Example running the classification pipeline on real pages.

This example shows:
1. Fetching page content over HTTP
2. Describing and tagging each page (stage 1)
3. Suggesting a group among the existing ones (stage 2)
4. Storing the pending suggestion (stage 3)
5. Creating or reusing groups automatically (stage 4)

Usage:
    uv run python examples/classify_tab_example.py https://www.rust-lang.org https://docs.python.org/3/
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tab_organizer.agents.content_extractor import HttpContentExtractor
from tab_organizer.agents.inference import get_inference_session
from tab_organizer.agents.pipeline import create_pipeline
from tab_organizer.browser.base import BrowserTab
from tab_organizer.browser.memory import InMemoryGroupingService
from tab_organizer.config import get_settings, setup_logging
from tab_organizer.events import NotificationBus, TabDataMirror, TabDataPatch
from tab_organizer.state.database import SQLiteKeyValueStore
from tab_organizer.state.group_catalog import GroupCatalog
from tab_organizer.state.tab_state import TabStateStore


async def run(urls: list[str]) -> None:
    settings = get_settings()
    extractor = HttpContentExtractor(timeout=settings.fetch_timeout)
    grouping = InMemoryGroupingService()
    bus = NotificationBus()

    def print_patch(event):
        if isinstance(event, TabDataPatch):
            for url, classification in event.patch.items():
                print(f"  {url}: {classification.description} {classification.tags}")

    bus.subscribe(print_patch)

    with SQLiteKeyValueStore(":memory:") as store:
        tab_state = TabStateStore(store)
        mirror = TabDataMirror(tab_state.all_classifications)
        bus.subscribe(mirror)
        catalog = GroupCatalog(store)
        await tab_state.set_instructions("Group every tab automatically by broad topic.")

        pipeline = create_pipeline(
            session=get_inference_session(),
            extractor=extractor,
            grouping=grouping,
            tab_state=tab_state,
            catalog=catalog,
            bus=bus,
        )

        for i, url in enumerate(urls, start=1):
            tab = grouping.upsert_tab(BrowserTab(id=i, url=url, title=url, window_id=1))
            pipeline.on_tab_updated(tab, "complete")

        outcomes = await pipeline.drain()
        print()
        print(f"Outcomes: {[o.value for o in outcomes]}")
        print(f"Dashboard mirror holds {len(mirror.tab_data)} tabs")

        groups = await grouping.list_groups()
        records = await catalog.get_records([g.id for g in groups])
        for group in groups:
            members = [t.url for t in await grouping.list_tabs() if t.group_id == group.id]
            print(f"\nGroup '{group.title}' ({group.color.value})")
            print(f"  {records[group.id].description}")
            for url in members:
                print(f"  - {url}")

    await extractor.aclose()


def main():
    """Run the pipeline on the URLs given on the command line."""
    urls = sys.argv[1:] or ["https://www.rust-lang.org", "https://docs.python.org/3/"]
    setup_logging(get_settings().log_level)
    asyncio.run(run(urls))


if __name__ == "__main__":
    main()
