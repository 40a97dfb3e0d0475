from rxfold.cli import main

main()
