"""
Batch job for computing listener similarities.

The API process already runs this sweep every few hours; use the script
to rebuild the similarity index by hand, e.g. after a bulk data import.

Run with: python -m app.scripts.compute_similarities
"""

import time

from app.core.database import SessionLocal
from app.core.logging import setup_logging
from app.services.similarity import compute_all_similarities


def progress_callback(current: int, total: int):
    """Print progress updates."""
    percent = int(current / total * 100)
    bar_length = 40
    filled = int(bar_length * current / total)
    bar = "█" * filled + "░" * (bar_length - filled)
    print(f"\r  [{bar}] {percent}% ({current}/{total})", end="", flush=True)


def main():
    """Run batch similarity computation."""
    setup_logging()
    print("Starting batch similarity computation...\n")
    start_time = time.time()

    db = SessionLocal()

    try:
        print("Computing similarities for all listeners...")
        stats = compute_all_similarities(db, progress_callback=progress_callback)

        # Print final newline after progress bar
        print()

        elapsed = time.time() - start_time

        print("\n=== Computation Complete ===")
        print(f"Time elapsed: {elapsed:.1f} seconds")
        print(f"Listeners processed: {stats['users_processed']}")
        print(f"Similarity pairs created: {stats['similarities_created']}")
        print(f"Similarity pairs updated: {stats['similarities_updated']}")

        if stats["users_processed"] > 0:
            pairs = stats["similarities_created"] + stats["similarities_updated"]
            print(f"Average neighbors per listener: {2 * pairs / stats['users_processed']:.1f}")

        print("\n✓ Batch job complete!")

    except Exception as e:
        print(f"\n✗ Error during computation: {e}")
        raise

    finally:
        db.close()


if __name__ == "__main__":
    main()
