from examdesk.cli import main

raise SystemExit(main())
