from repo2md.cli import main

raise SystemExit(main())
