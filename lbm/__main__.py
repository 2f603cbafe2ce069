from lbm.cli import main

main()
