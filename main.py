from stream_harvest.scraper.run import main

if __name__ == "__main__":
    # Same flags as the stream-harvest console script.
    raise SystemExit(main())
