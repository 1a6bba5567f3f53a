from magstream.cli import main

raise SystemExit(main())
