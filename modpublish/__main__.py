from modpublish.cli import main

main()
