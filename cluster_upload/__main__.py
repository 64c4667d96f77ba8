from cluster_upload.cli import main

raise SystemExit(main())
