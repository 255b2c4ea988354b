from noria_pod.cli import main

main()
