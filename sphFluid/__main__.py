# -- sphFluid Module Entry Point -- #

from sphFluid.runner import main

raise SystemExit(main())
