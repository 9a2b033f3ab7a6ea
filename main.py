"""Simple CLI entry point for browsing the sample catalog with filters."""

import asyncio
import sys

from filter_sync import CachedDataSource, FilterSession, MemoryLocation, load_sample_catalog
from filter_sync.errors import FilterSyncError

HELP = (
    "Commands:\n"
    "  sort <recent|priceAsc|priceDesc|popular>   min <n|->   max <n|->\n"
    "  cat <id|''>   only <id>   ids <id,id,...>\n"
    "  attr <key> <value>   clear <key>   clear-attrs\n"
    "  page <n>   size <n>   search <text>   reset   refetch   show   help   exit"
)


def _price(arg: str):
    if arg in ("", "-"):
        return None
    return float(arg) if "." in arg else int(arg)


def apply_command(session: FilterSession, line: str) -> bool:
    """Run one command against the session. Returns False for unknown commands."""
    cmd, _, rest = line.partition(" ")
    rest = rest.strip()
    store = session.store

    if cmd == "sort":
        store.set_sort(rest)
    elif cmd == "min":
        store.set_price_min(_price(rest))
    elif cmd == "max":
        store.set_price_max(_price(rest))
    elif cmd == "cat":
        store.toggle_category("" if rest in ("''", '""') else rest)
    elif cmd == "only":
        store.replace_category(rest)
    elif cmd == "ids":
        store.set_category_ids([i for i in rest.split(",") if i])
    elif cmd == "attr":
        key, _, value = rest.partition(" ")
        store.toggle_attribute(key, value.strip())
    elif cmd == "clear":
        store.clear_attribute(rest)
    elif cmd == "clear-attrs":
        store.clear_all_attributes()
    elif cmd == "page":
        store.set_page(int(rest))
    elif cmd == "size":
        store.set_page_size(int(rest))
    elif cmd == "search":
        store.set_search(rest)
    elif cmd == "reset":
        store.reset()
    elif cmd == "refetch":
        session.refetch(invalidate=True)
    elif cmd == "show":
        pass
    else:
        return False
    return True


def render(session: FilterSession) -> str:
    state = session.results
    lines = [f"Address: {session.address.location.href}"]
    if state.error:
        lines.append(f"Error: {state.error.message}")
    if state.meta:
        m = state.meta
        lines.append(f"Page {m.page}/{m.total_pages} - {m.filtered} of {m.total} products")
    for item in state.items:
        lines.append(f"  {item['id']}  {item['name']:<20} {item['price']:>6}  [{item['categoryId']}]")
    return "\n".join(lines)


async def main() -> None:
    catalog, hierarchy = load_sample_catalog()
    query = sys.argv[1] if len(sys.argv) > 1 else ""
    session = FilterSession(CachedDataSource(catalog), MemoryLocation(query), hierarchy=hierarchy)
    session.start()
    await session.wait_settled()
    print("Catalog browser is ready. Type 'help' for commands, 'exit' or 'quit' to stop.")
    print(render(session) + "\n")

    while True:
        try:
            user_input = input("> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nExiting.")
            break

        if not user_input:
            continue
        if user_input.lower() in {"exit", "quit"}:
            print("Goodbye.")
            break
        if user_input == "help":
            print(HELP)
            continue

        try:
            known = apply_command(session, user_input)
        except (ValueError, FilterSyncError) as e:
            print(f"Invalid command: {e}")
            continue
        if not known:
            print(HELP)
            continue

        await session.wait_settled()
        print(render(session) + "\n")

    await session.aclose()
    print("Session ended.")


if __name__ == "__main__":
    asyncio.run(main())
